"""The fixed ``smol:`` vocabulary describing the language's own structure."""

from __future__ import annotations

CORE_VOCABULARY = """
smol:Class a owl:Class ;
    rdfs:label "class" .
smol:Field a owl:Class ;
    rdfs:label "field" .
smol:Method a owl:Class ;
    rdfs:label "method" .

smol:hasField a owl:ObjectProperty ;
    rdfs:domain smol:Class ;
    rdfs:range smol:Field .
smol:hasMethod a owl:ObjectProperty ;
    rdfs:domain smol:Class ;
    rdfs:range smol:Method .

smol:fieldName a owl:DatatypeProperty ;
    rdfs:domain smol:Field .
smol:fieldType a owl:DatatypeProperty ;
    rdfs:domain smol:Field .
smol:methodName a owl:DatatypeProperty ;
    rdfs:domain smol:Method .
smol:returnType a owl:DatatypeProperty ;
    rdfs:domain smol:Method .

smol:null a owl:NamedIndividual ;
    rdfs:label "null" .
"""
