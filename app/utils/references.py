import uuid


def generate_reference(prefix: str = "TRX") -> str:
    """Unique transaction reference, e.g. ``TRX-3F2A9C01B7DE``."""
    return f"{prefix}-{uuid.uuid4().hex[:12].upper()}"
