from api.tokens.orm.upload_token_model import UploadTokenModel

__all__ = ["UploadTokenModel"]
