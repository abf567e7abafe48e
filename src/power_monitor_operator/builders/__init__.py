"""Desired-state builders."""
