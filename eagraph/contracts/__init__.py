"""
Contracts Module

Explicit interfaces and data transfer objects shared by every layer of the
graph repository. Layers exchange these records, never each other's
internal state.

DESIGN PRINCIPLES:
==================
1. Contract types are immutable (frozen dataclasses) unless they model a
   staging area that is explicitly single-writer
2. Every failure is an enumerated ErrorCode carried in a Result
3. Node and edge kinds are closed enumerations resolved by table lookup
4. All timestamps use UTC
"""
