"""Processors that rewrite per-namespace fluentd configuration fragments."""