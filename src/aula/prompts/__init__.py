"""Prompt templates for the AI features."""
