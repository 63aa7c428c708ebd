from .schemas import HealthResponse, IngestCommand, ReadCommand

__all__ = ["HealthResponse", "IngestCommand", "ReadCommand"]
