"""Core building blocks: configuration, path templates, logging, constants."""
