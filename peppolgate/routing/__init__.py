"""Event routing: fans node events out to every configured sink.

Sinks are pluggable targets.  The node registers a webhook sink (tenant
subscriptions) and an integration sink (activated plugins); any object
implementing the ``EventSink`` protocol can be added.

The EventDispatcher hands each event to every registered sink.  A sink
failure never blocks the others.
"""
