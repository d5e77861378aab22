"""Webhook outbox: domain events, fanout, signed delivery."""
