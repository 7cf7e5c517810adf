"""Bundled questionnaire model."""
