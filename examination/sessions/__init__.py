"""
Exam Sessions Package

Exam taker progress records, question responses and the endpoints used
while taking a module.

Author: Exam Delivery Development Team
Version: 1.0.0
"""
