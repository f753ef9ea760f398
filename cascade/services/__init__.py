"""Planning, execution, review-request and state services."""
