"""Binary encoding, reflection and JSON input and output for Claw Structs."""

__version__ = "0.1.0"
__all__ = [
    "codec",
    "enums",
    "header",
    "jsonio",
    "mapping",
    "reflect_lists",
    "reflection",
    "registry",
    "values",
]