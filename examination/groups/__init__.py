"""
Groups Package

Groups of modules, their ordering and the assignments delivering them to
exam takers.

Author: Exam Delivery Development Team
Version: 1.0.0
"""
