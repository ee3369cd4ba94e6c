"""Egress policy built from domain pattern and IP network filters."""