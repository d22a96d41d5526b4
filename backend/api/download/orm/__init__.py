from api.download.orm.download_event_model import DownloadEventModel

__all__ = ["DownloadEventModel"]
