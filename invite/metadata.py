"""Invite package metadata."""

version = '0.1.0'
