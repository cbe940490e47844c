"""Core types shared by the publishing and subscription sides."""
