"""Transactional outbox: durable events fanned out to per-handler deliveries."""
