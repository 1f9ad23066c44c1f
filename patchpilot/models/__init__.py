"""Data model"""
