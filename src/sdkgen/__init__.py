"""sdkgen: Java SDK generation, build and changelog orchestration."""

__version__ = "0.1.0"
