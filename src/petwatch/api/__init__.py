"""Remote pet hub API: DTOs and the async client."""
