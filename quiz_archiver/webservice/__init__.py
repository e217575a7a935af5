from quiz_archiver.webservice.base import WebserviceFunction
from quiz_archiver.webservice.factory import WebserviceRegistry

__all__ = ["WebserviceFunction", "WebserviceRegistry"]
