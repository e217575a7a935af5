from quiz_archiver.config.settings import Settings

REQUIRED_WEBSERVICE_PROTOCOL = "rest"


def missing_requirements(settings: Settings) -> list[str]:
    """Describe every configuration requirement for archiving that is not met."""
    missing = []
    if not settings.worker_url.strip():
        missing.append("worker_url is not configured")
    if not settings.enable_webservices:
        missing.append("webservices are disabled")
    protocols = {p.strip().lower() for p in settings.webservice_protocols.split(",") if p.strip()}
    if REQUIRED_WEBSERVICE_PROTOCOL not in protocols:
        missing.append(f"webservice protocol '{REQUIRED_WEBSERVICE_PROTOCOL}' is not enabled")
    return missing


def is_ready(settings: Settings) -> bool:
    """Whether tasks can be handed over to the archive worker and called back."""
    return not missing_requirements(settings)
