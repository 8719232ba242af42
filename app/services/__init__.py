"""
Service Organization
====================
Services are organized by their lifecycle and instantiation pattern:

**application/**
  Services managed by ServiceContainer, one instance per application.
  Examples: AnomalyService

**utilities/**
  Stateless services and pure helpers that can be instantiated multiple times.
  Examples: AnomalyDetectionService, the anomaly detector functions
"""
