"""mergebot — serialized squash-merging of GitHub pull requests via ``!merge`` comments."""
