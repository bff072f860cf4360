"""
Core Package

Contains the venue-agnostic translation layer:
- Enum Registry: canonical enums and their per-venue spellings (core.enums)
- Request Normalizer: validation and canonical -> venue parameter mapping (core.normalizer)
- Signer: HMAC request signing with an injectable clock (core.signer)
- VenueAdapter: abstract base class every venue implements (core.venue_adapter)
- Response Normalizer: venue payloads -> immutable canonical models (core.response_normalizer)
- OrderGateway: orchestrator driving each call through its state machine (core.gateway)

Venue-specific code lives in the exchanges package; nothing in core knows a
venue's wire format.
"""
