"""Streaming client for OpenAI-compatible chat completion APIs."""
