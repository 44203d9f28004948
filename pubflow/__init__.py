"""pubflow: promote a package from its working branch to a published release."""

__version__ = "0.4.0"
