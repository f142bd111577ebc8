"""
prcredit - Attribute the commits of a GitHub pull request to their authors.

Squash-merged PRs collapse their history into one commit whose subject line
references the original PR, e.g. "Add retry support (#1234)". prcredit follows
those references breadth-first and counts the real commits of every PR in the
closure.

Usage:
    prcredit init                          # Write a sample prcredit.yml
    prcredit count <owner> <repo> <pr>     # Commit counts per author
    prcredit rate-limit                    # Remaining API quota
"""

__version__ = "0.1.0"
__author__ = "prcredit"
