"""Static catalogue of update targets and the repositories they write to.

Groups are declared in execution priority order: repositories owned by a
single target first, then shared repositories. ``vuln-list-redhat`` pulls the
full Red Hat history on every run and can take hours, so it is declared last
to keep it from delaying the faster repositories on partial runs.
"""

from typing import Dict, List, Optional, Tuple

from .models import RepoGroup, Target

SLOW_GROUP = "vuln-list-redhat"

# (group id, shared, commit title, [(target id, description, owned subdirectory), ...])
_GROUP_TABLE: List[Tuple[str, bool, str, List[Tuple[str, str, str]]]] = [
    ("vuln-list-nvd", False, "NVD", [
        ("nvd", "NVD", ""),
    ]),
    ("vuln-list-debian", False, "Debian Security Bug Tracker", [
        ("debian", "Debian Security Bug Tracker", ""),
    ]),
    ("vuln-list", True, "Vulnerability Database Updates", [
        ("alpine", "Alpine Issue Tracker", "alpine"),
        ("alpine-unfixed", "Alpine Secfixes Tracker", "alpine-unfixed"),
        ("ubuntu", "Ubuntu CVE Tracker", "ubuntu"),
        ("amazon", "Amazon Linux Security Center", "amazon"),
        ("oracle-oval", "Oracle Linux OVAL", "oracle"),
        ("photon", "Photon Security Advisories", "photon"),
        ("suse-cvrf", "SUSE CVRF", "cvrf"),
        ("alma", "AlmaLinux Security Advisory", "alma"),
        ("rocky", "Rocky Linux Security Advisory", "rocky"),
        ("azure", "Azure Linux and CBL-Mariner Vulnerability Data", "azure"),
        ("osvdev", "OSV Database", "osv"),
        ("wolfi", "Wolfi Security Data", "wolfi"),
        ("chainguard", "Chainguard Security Data", "chainguard"),
        ("openeuler", "openEuler CVE Data", "openeuler"),
        ("echo", "Echo CVE Data", "echo"),
        ("minimos", "MinimOS Security Data", "minimos"),
        ("seal", "Seal Security Data", "seal"),
        ("eoldates", "EOL dates", "eoldates"),
        ("rootio", "Root CVE Feed Tracker", "rootio"),
        ("cwe", "CWE", "cwe"),
        ("glad", "GitLab Advisory Database", "glad"),
    ]),
    (SLOW_GROUP, True, "Red Hat Security Updates", [
        ("redhat-oval", "Red Hat OVAL v2", "oval"),
        ("redhat", "Red Hat Security Data API", "api"),
        ("redhat-csaf-vex", "Red Hat CSAF VEX", "csaf-vex"),
    ]),
]


class TargetRegistry:
    """Read-only lookup over targets and repository groups."""

    def __init__(self, groups: List[RepoGroup], targets: List[Target]):
        self._groups: Dict[str, RepoGroup] = {}
        self._targets: Dict[str, Target] = {}

        for group in groups:
            if group.group_id in self._groups:
                raise ValueError(f"duplicate group id: {group.group_id}")
            self._groups[group.group_id] = group

        for target in targets:
            if target.target_id in self._targets:
                raise ValueError(f"duplicate target id: {target.target_id}")
            group = self._groups.get(target.group_id)
            if group is None:
                raise ValueError(f"target {target.target_id} references unknown group {target.group_id}")
            if target.target_id not in group.members:
                raise ValueError(f"target {target.target_id} missing from group {group.group_id}")
            if group.shared != target.is_shared:
                raise ValueError(
                    f"target {target.target_id}: owned subdirectory must be set exactly when its group is shared"
                )
            self._targets[target.target_id] = target

        for group in groups:
            for member in group.members:
                if member not in self._targets:
                    raise ValueError(f"group {group.group_id} lists unknown target {member}")
            if not group.shared and len(group.members) != 1:
                raise ValueError(f"solo group {group.group_id} must have exactly one member")

    @classmethod
    def from_table(cls, table=None, slow_group: str = SLOW_GROUP) -> "TargetRegistry":
        groups: List[RepoGroup] = []
        targets: List[Target] = []
        if table is None:
            table = _GROUP_TABLE
        for group_id, shared, title, members in table:
            groups.append(
                RepoGroup(
                    group_id=group_id,
                    members=tuple(member[0] for member in members),
                    shared=shared,
                    title=title,
                    slow=group_id == slow_group,
                )
            )
            targets.extend(Target(tid, desc, group_id, subdir) for tid, desc, subdir in members)

        # Solo groups run before shared ones; declared order otherwise.
        groups.sort(key=lambda group: group.shared)
        return cls(groups, targets)

    def lookup(self, target_id: str) -> Optional[Target]:
        return self._targets.get(target_id)

    def group(self, group_id: str) -> Optional[RepoGroup]:
        return self._groups.get(group_id)

    def group_of(self, target_id: str) -> RepoGroup:
        return self._groups[self._targets[target_id].group_id]

    def list_group(self, group_id: str) -> List[Target]:
        group = self._groups[group_id]
        return [self._targets[member] for member in group.members]

    def all_group_ids(self) -> List[str]:
        return list(self._groups)

    def all_target_ids(self) -> List[str]:
        ids: List[str] = []
        for group in self._groups.values():
            ids.extend(group.members)
        return ids

    def aliases(self) -> Dict[str, List[str]]:
        """Aggregate names mapped to the ids they expand to."""
        everything = self.all_target_ids()
        fast: List[str] = []
        for group in self._groups.values():
            if not group.slow:
                fast.extend(group.members)

        mapping: Dict[str, List[str]] = {
            "all": everything,
            "everything": everything,
            "fast": fast,
        }
        for group in self._groups.values():
            if group.slow:
                mapping[f"all-but-{group.group_id.rsplit('-', 1)[-1]}"] = fast
            mapping[group.group_id] = list(group.members)
        return mapping


REGISTRY = TargetRegistry.from_table()
