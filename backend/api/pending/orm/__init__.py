from api.pending.orm.pending_upload_model import PendingUploadModel

__all__ = ["PendingUploadModel"]
