# dailypli/stages
#
# One module per phase of a run:
#   select    -> channel uploads to filtered candidates
#   reconcile -> candidates to a converged playlist
