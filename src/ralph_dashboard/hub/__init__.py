"""Observer-facing event hub.

Modules:
    events: Message types, LogEvent and DashboardEvent
    broadcast_hub: Subscriber queues, retained snapshots and fan-out
    commands: Dispatch of observer commands to their owning component
"""
