"""Building blocks for event-driven network servers: a poller with task queues, listeners, socket helpers, options and load balancers."""

__version__ = "0.1.0"