"""ResourceV2: moves device resources of Pod containers into pod-level extended resources."""

from .admission import (
    AdmissionAttributes,
    AdmissionResult,
    GroupVersionResource,
    Handler,
    ResourceV2Plugin,
)
from .errors import (
    AdmissionError,
    BadRequestError,
    DuplicateIdentifierError,
    PluginConfigError,
)
from .models import Container, Pod, PodExtendedResource, ResourceRequirements
from .registry import Plugins, register
from .rewriter import rewrite

__version__ = "0.1.0"
