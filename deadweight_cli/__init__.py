"""deadweight: find unused files, assets, dependencies and exports in JS/TS projects."""

__version__ = "0.4.0"
