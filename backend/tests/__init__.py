"""
Event Certificate Service - Test Suite

Structure:
- unit/: Unit tests for services, utilities, routes and models
- integration/: Integration tests for API endpoints
"""
