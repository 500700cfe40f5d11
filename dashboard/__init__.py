"""Lending Book Dashboard"""
