class PersonaError(Exception):
    """Base class for errors raised by the persona pipeline."""


class LoadError(PersonaError):
    """The knowledge source is malformed. Fatal at startup."""


class EmbeddingError(PersonaError):
    """The embedding provider failed or returned an unusable vector."""


class GenerationError(PersonaError):
    """The generative backend produced no usable text."""


class GenerationTimeout(GenerationError):
    """The generative call did not complete before its deadline."""


class UpstreamError(GenerationError):
    """Transport or application level failure reported by the backend."""


class EmptyResponse(GenerationError):
    """The backend answered but the payload carried no generated text."""
