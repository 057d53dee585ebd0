"""
tenantsql/exec

Statement execution: query context, expression evaluation, joins, grouping,
window functions and the statement executor.
"""
