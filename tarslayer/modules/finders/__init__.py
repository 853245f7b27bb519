"""Header decoding, block reading and the archive decode loop."""
