"""Laundry load lifecycle tracking: collection, partial drops, hotel approval and notifications."""
