"""Warehouse and snapshot adapters"""
