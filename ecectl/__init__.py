"""
ecectl - lifecycle management for search clusters on a plan-based control plane.

Expands cluster definitions into control-plane plans, submits them, waits
for convergence and reads the live state back for drift detection.
"""

from .client import ControlPlaneClient
from .config import Config
from .engine import ConvergenceEngine, SystemClock
from .errors import (
    ConfigurationError,
    ConvergenceCancelledError,
    ConvergenceTimeoutError,
    DecodingError,
    EceError,
    InvalidStateTransition,
    OperationError,
    PlanFailureError,
    TransportError,
)
from .lifecycle import ClusterLifecycle, LifecycleResult
from .models import ResourceIdentity, ResourceKind, ResourceState

__all__ = [
    'ClusterLifecycle',
    'Config',
    'ControlPlaneClient',
    'ConvergenceEngine',
    'LifecycleResult',
    'ResourceIdentity',
    'ResourceKind',
    'ResourceState',
    'SystemClock',

    # Errors
    'ConfigurationError',
    'ConvergenceCancelledError',
    'ConvergenceTimeoutError',
    'DecodingError',
    'EceError',
    'InvalidStateTransition',
    'OperationError',
    'PlanFailureError',
    'TransportError',
]

__version__ = "0.1.0"
