"""Domain exceptions for node resource operations."""


class NodeError(Exception):
    """Base class for node resource errors."""


class UnsupportedFormatError(NodeError):
    """Raised when a session description declares an unsupported media type."""


class SdpParseError(NodeError):
    """Raised when session description text is malformed or incomplete."""


class NoMatchingInterfaceError(NodeError):
    """Raised when a leg address is not bound to any host interface."""


class DuplicateResourceError(NodeError):
    """Raised when a resource id or internal id is already in use."""


class ResourceNotFoundError(NodeError):
    """Raised when an operation references an unknown resource."""


class InternalInconsistencyError(NodeError):
    """Raised when a resource that must exist is missing from the graph."""


class InvalidStagedRequestError(NodeError):
    """Raised when a staged connection patch cannot be applied."""


__all__ = [
    "DuplicateResourceError",
    "InternalInconsistencyError",
    "InvalidStagedRequestError",
    "NoMatchingInterfaceError",
    "NodeError",
    "ResourceNotFoundError",
    "SdpParseError",
    "UnsupportedFormatError",
]
