"""
Thoughtseize manages age encrypted secrets declared in a meta_secrets.nix manifest.

The manifest defines recipient groups in a 'let' block and maps each secret
path to the groups allowed to decrypt it. The recipients of a secret are
resolved by evaluating secrets.nix with 'nix eval', and the age command is
used to perform all encryption and decryption.

\b
    let
      tech = meta.ssh.groups.TECH;
    in
    {
      "api/token.age".publicKeys = tech;
    }

Select the identity used to decrypt secrets:

\b
    $ thoughtseize identities
    $ thoughtseize identity ~/.ssh/id_ed25519

Create a new encrypted secret and add it to the manifest:

\b
    $ thoughtseize create "api/token.age" token.txt --group tech

Print, view or edit a secret without writing plaintext to disk:

\b
    $ thoughtseize cat "api/token.age"
    $ thoughtseize view "api/token.age"
    $ thoughtseize edit "api/token.age"

Delete a secret and its manifest entry:

\b
    $ thoughtseize rm "api/token.age"
"""

__version__ = '0.1.0'
