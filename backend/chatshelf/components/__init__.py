"""Core Business Components.

This package contains independent business modules:
- workspace: Workspace, Folder, Chat storage and the rules that link them
- ollama: Ollama client and the streaming reply pipeline
"""
