"""Pydantic request and response models for the CreatorTent API.

Responses use camelCase keys where clients expect them (``inviteCode``,
``alreadyMember``) and snake_case column names elsewhere.
"""
