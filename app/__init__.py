"""Campus Marketplace backend"""
