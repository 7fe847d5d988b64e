"""Booking engine"""
