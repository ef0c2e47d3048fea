"""表现层：HTTP 接口"""
