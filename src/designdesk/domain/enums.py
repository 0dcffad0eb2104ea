"""Enumerations for domain models."""

from enum import Enum


class Urgency(str, Enum):
    """How quickly the requester needs the piece."""

    NORMAL = "normal"
    URGENT = "urgent"
    EXPRESS = "express"


class RequestStatus(str, Enum):
    """Request lifecycle states."""

    PENDING = "pending"
    IN_PROCESS = "in-process"
    REVIEW = "review"
    COMPLETED = "completed"
    REJECTED = "rejected"


class ExecutorRole(str, Enum):
    """Executor roles, from highest rank (tier 1) to lowest (tier 3)."""

    GERENTE = "gerente"
    DISENADOR = "diseñador"
    PRACTICANTE = "practicante"


class QueueStage(str, Enum):
    """Which queue a request is waiting in."""

    PENDING = "pending"  # No executor yet
    ASSIGNED = "assigned"  # Has an executor, still active


class UnavailableReason(str, Enum):
    """Why an executor is temporarily out of the pool."""

    VACACIONES = "vacaciones"
    INCAPACIDAD = "incapacidad"
    PROYECTO_EXTERNO = "proyecto_externo"
    OTRA = "otra"


class Specialty(str, Enum):
    """Executor specialties (informational only)."""

    SOCIAL_MEDIA = "social_media"
    BRANDING = "branding"
    EDITORIAL = "editorial"
    VIDEO = "video"
    MOTION_GRAPHICS = "motion_graphics"
    ILUSTRACION = "ilustracion"


# Statuses that count toward queue position and executor load
ACTIVE_STATUSES = frozenset(
    {RequestStatus.PENDING, RequestStatus.IN_PROCESS, RequestStatus.REVIEW}
)

TERMINAL_STATUSES = frozenset({RequestStatus.COMPLETED, RequestStatus.REJECTED})
