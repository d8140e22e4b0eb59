"""
Astral Core - Crisis Detection & Offline Resilience

This package provides the crisis-critical core of the Astral
mental-health support application:

- Real-time, debounced crisis risk analysis of user text
- Escalation/alert state machine with emergency short-circuits
- Durable, retrying sync queue for actions taken while offline
- Capability-aware caching of crisis resources

IMPORTANT: This is a safety-critical component.
Crisis resources must stay reachable on every device and network.
"""

__version__ = "0.1.0"
__author__ = "Astral Core Engineering Team"
